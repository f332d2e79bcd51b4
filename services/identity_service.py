import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.users import User
from services.errors import IdentityConflict, ValidationFailed
from utils.dates import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email):
    return (email or '').strip().lower()


class IdentityService:

    @staticmethod
    def resolve(subject_id, email, name=None):
        """Return the user bound to ``subject_id``, creating it on first sight.

        A subject bound to a soft-deleted user raises ``IdentityConflict``
        unless ``IDENTITY_REACTIVATE_DELETED_USERS`` is set.
        """
        if not subject_id:
            raise ValidationFailed('Identity has no subject id')

        user = User.query.filter_by(subject_id=subject_id).first()
        if user is not None:
            return IdentityService._check_active(user)

        email = normalize_email(email)
        if not email:
            raise ValidationFailed('Identity has no email address')

        user = User(
            subject_id=subject_id,
            email=email,
            name=(name or '').strip() or email.split('@')[0],
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost the race on the unique subject id; use the winner's row
            db.session.rollback()
            user = User.query.filter_by(subject_id=subject_id).first()
            if user is None:
                raise
            return IdentityService._check_active(user)

        logger.info('Created user %s for subject %s', user.id, subject_id)
        return user

    @staticmethod
    def _check_active(user):
        if not user.is_deleted:
            return user
        if current_app.config.get('IDENTITY_REACTIVATE_DELETED_USERS'):
            logger.info('Reactivating deleted user %s on sign-in', user.id)
            return IdentityService.reactivate(user)
        logger.warning('Sign-in by deleted user %s refused', user.id)
        raise IdentityConflict(user_id=user.id)

    @staticmethod
    def update_profile(user, name=None, email=None, avatar_url=None):
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationFailed('Name cannot be empty')
            user.name = name
        if email is not None:
            email = normalize_email(email)
            if not email:
                raise ValidationFailed('Email cannot be empty')
            user.email = email
        if avatar_url is not None:
            user.avatar_url = avatar_url or None
        db.session.commit()
        return user

    @staticmethod
    def soft_delete(user):
        if user.deleted_at is None:
            user.deleted_at = utcnow()
            db.session.commit()
            logger.info('Deactivated user %s', user.id)
        return user

    @staticmethod
    def reactivate(user):
        if user.deleted_at is not None:
            user.deleted_at = None
            db.session.commit()
            logger.info('Reactivated user %s', user.id)
        return user

    @staticmethod
    def find_by_email(email):
        return User.query.filter_by(email=normalize_email(email)).order_by(User.id).first()
