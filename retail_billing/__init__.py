"""
Retail billing & ledger reconciliation core.

Public entry points:
    from retail_billing.app import BillingApp
    from retail_billing.database import get_connection
    from retail_billing.modules.billing import BillingSession, BillingService
    from retail_billing.modules.returns import ReturnService
    from retail_billing.modules.ledger import LedgerService
"""

__version__ = "1.1.0"
