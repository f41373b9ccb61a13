"""Services — operator utilities built on the adapters."""
