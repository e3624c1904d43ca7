from .db import db
from .otp_code import OtpCode, OtpIssueLock
from .user import User
from .audit_log import AuditLog
