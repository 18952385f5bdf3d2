"""
Charges Kernel

Pure domain layer and shared infrastructure for the charges engine:
- Charge and packaging batch lifecycle state machines
- Cost calculator value objects
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy persistence models
"""

__version__ = "0.1.0"
