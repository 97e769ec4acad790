"""
Database models package
"""
from .staff import StaffUser, StaffRole, StaffStatus
from .participant import Participant, ParticipantStatus
from .prize import Prize, PrizeStatus
from .transaction_log import TransactionLogEntry, LogType

__all__ = [
    'StaffUser',
    'StaffRole',
    'StaffStatus',
    'Participant',
    'ParticipantStatus',
    'Prize',
    'PrizeStatus',
    'TransactionLogEntry',
    'LogType',
]
