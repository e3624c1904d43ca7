from models import db
from models.user import User
from security.password import hash_password
from utils.clock import utcnow


class AccountExists(Exception):
    pass


class SqlAccountStore:
    """
    The credential store the code-gated flows hand off to. Only what those
    flows need: create an account, replace a password.
    """

    def exists(self, email: str) -> bool:
        return User.query.filter_by(email=email).first() is not None

    def create_account(self, email: str, password: str) -> User:
        if self.exists(email):
            raise AccountExists(email)
        user = User(email=email, password_hash=hash_password(password))
        db.session.add(user)
        db.session.commit()
        return user

    def set_password(self, email: str, new_password: str) -> bool:
        user = User.query.filter_by(email=email).first()
        if not user:
            return False
        user.password_hash = hash_password(new_password)
        user.password_changed_at = utcnow()
        db.session.commit()
        return True
