"""
fairsight - activity and traffic reconciliation engine.

  models/      -> Core value types and backend payload schemas
  capture/     -> Backend boundary (interface, validation, dummy + scapy backends)
  activity/    -> Activity log parser and daily summary aggregator
  monitoring/  -> Adapter lifecycle, traffic reconciliation, shutdown detection
  utils/       -> Date helpers and formatters
  cli/         -> Click command line interface
"""

__version__ = "0.1.0"
