from lending_os.models.audit_log import AuditLog
from lending_os.models.fund import Fund
from lending_os.models.fund_call import FundCall
from lending_os.models.fund_commitment import FundCommitment
from lending_os.models.fund_distribution import FundDistribution
from lending_os.models.fund_loan_allocation import FundLoanAllocation
from lending_os.models.lender import Lender
from lending_os.models.loan import Loan
from lending_os.models.org import Org
from lending_os.models.payment_schedule_entry import PaymentScheduleEntry

__all__ = [
    "AuditLog",
    "Fund",
    "FundCall",
    "FundCommitment",
    "FundDistribution",
    "FundLoanAllocation",
    "Lender",
    "Loan",
    "Org",
    "PaymentScheduleEntry",
]
