from .tenancy import Company
from .auth import User, CompanyMembership, SessionToken
from .contacts import ContactProfile
from .reports import IncomeRecord, ReportSequence
from .messaging import LineGroup

__all__ = [
    'Company',
    'User', 'CompanyMembership', 'SessionToken',
    'ContactProfile',
    'IncomeRecord', 'ReportSequence',
    'LineGroup',
]
