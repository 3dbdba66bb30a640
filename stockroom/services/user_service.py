"""
User Service
Signup, admin user management and profile edits
"""

import time
import logging
from typing import Dict, Optional

from stockroom.errors import ValidationError, PermissionDeniedError
from stockroom.services.lifecycle_service import ActionResult
from stockroom.utils.helpers import allowed_file, clean_text, is_valid_email

logger = logging.getLogger(__name__)

ROLES = ('admin', 'staff')
AVATAR_BUCKET = 'avatars'


class UserService:
    """Account actions issued through the data store"""

    def __init__(self, store, min_password_length=6):
        self.store = store
        self.min_password_length = min_password_length

    def _full_name(self, form):
        full_name = clean_text(form.get('full_name'))
        if not full_name:
            full_name = ' '.join(
                v for v in (clean_text(form.get('first_name')), clean_text(form.get('last_name'))) if v
            )
        return full_name

    def _validate_account(self, form) -> Dict:
        full_name = self._full_name(form)
        email = clean_text(form.get('email')).lower()
        password = form.get('password') or ''
        department = clean_text(form.get('department'))

        if not full_name or not email or not password or not department:
            raise ValidationError("Please fill in all required fields")
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        if len(password) < self.min_password_length:
            raise ValidationError(f"Password must be at least {self.min_password_length} characters")
        confirm = form.get('confirm_password')
        if confirm is not None and confirm != password:
            raise ValidationError("Passwords do not match")

        return {'full_name': full_name, 'email': email, 'password': password, 'department': department}

    def register(self, form):
        """Self-service signup; new accounts are staff and wait for approval"""
        fields = self._validate_account(form)
        fields['role'] = 'staff'
        user = self.store.sign_up(fields)
        logger.info(f"New signup pending approval: {user['email']}")
        return ActionResult('success', 'Account created. An administrator must approve it before you can sign in.',
                            {'user': user})

    def create_user(self, form):
        """Admin-created account, approved immediately"""
        fields = self._validate_account(form)
        role = clean_text(form.get('role')).lower() or 'staff'
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")
        fields['role'] = role
        user = self.store.create_user_bypassing_verification(fields)
        logger.info(f"User created by admin: {user['email']} ({role})")
        return ActionResult('success', 'User created successfully', {'user': user})

    def list_users(self, status: Optional[str] = None):
        filters = {'status': status} if status and status != 'all' else None
        return self.store.list_records('users', filters=filters, order_by='-created_at')

    def update_user(self, user_id, form):
        fields = {}
        full_name = self._full_name(form)
        if full_name:
            fields['full_name'] = full_name
        if form.get('department') is not None:
            fields['department'] = clean_text(form.get('department')) or None
        role = clean_text(form.get('role')).lower()
        if role:
            if role not in ROLES:
                raise ValidationError(f"Invalid role: {role}")
            fields['role'] = role
        if not fields:
            raise ValidationError("Nothing to update")

        user = self.store.update_record('users', user_id, fields)
        logger.info(f"User updated: {user_id}")
        return ActionResult('success', 'User updated successfully', {'user': user})

    def set_status(self, user_id, status):
        status = clean_text(status).lower()
        if status == 'approved':
            self.store.approve_user(user_id)
        elif status == 'rejected':
            self.store.reject_user(user_id)
        elif status == 'pending':
            self.store.update_record('users', user_id, {'status': 'pending'})
        else:
            raise ValidationError(f"Invalid status: {status}")
        logger.info(f"User {user_id} status set to {status}")
        return ActionResult('success', f"User {status}", {'id': user_id, 'status': status})

    def delete_user(self, user_id, actor):
        if actor and actor.get('id') == user_id:
            raise PermissionDeniedError("You cannot delete your own account")
        self.store.delete_record('users', user_id)
        logger.info(f"User deleted: {user_id}")
        return ActionResult('success', 'User deleted successfully', {'id': user_id})

    def update_profile(self, user, form):
        fields = {}
        full_name = self._full_name(form)
        if full_name:
            fields['full_name'] = full_name
        if form.get('department') is not None:
            fields['department'] = clean_text(form.get('department')) or None
        if not fields:
            raise ValidationError("Nothing to update")
        record = self.store.update_record('users', user['id'], fields)
        return ActionResult('success', 'Profile updated successfully', {'user': record})

    def upload_avatar(self, user, file):
        """
        Store an avatar image and point the profile at its public URL

        Args:
            user: Profile record of the uploader
            file: werkzeug FileStorage from the request
        """
        if file is None or not file.filename:
            raise ValidationError("Please choose an image to upload")
        if not allowed_file(file.filename):
            raise ValidationError("Unsupported file type")

        ext = file.filename.rsplit('.', 1)[1].lower()
        path = f"{user['id']}-{int(time.time())}.{ext}"
        self.store.upload(AVATAR_BUCKET, path, file.stream)
        url = self.store.public_url(AVATAR_BUCKET, path)

        record = self.store.update_record('users', user['id'], {'avatar_url': url})
        logger.info(f"Avatar updated for {user['id']}")
        return ActionResult('success', 'Avatar updated successfully', {'user': record, 'avatar_url': url})
