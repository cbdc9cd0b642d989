"""
User Service for GreenQuest
Handles user profiles, point awards and level progression
"""

import logging

from firebase_admin import firestore

from greenquest.schemas import UserProfile
from greenquest.utils.error_handler import DatabaseError, GreenQuestError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 100

PROFILE_FIELDS = ('display_name', 'school', 'photo_url')


def calculate_level(points):
    """
    Level = floor(points / 100) + 1
    """
    if points < 0:
        raise ValueError("Points cannot be negative")
    return points // POINTS_PER_LEVEL + 1


def _apply_points_award(transaction, user_ref, points_to_add, carbon_saved):
    snapshot = user_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise NotFoundError("User not found")

    user_data = snapshot.to_dict() or {}
    old_points = user_data.get('points') or 0
    new_points = old_points + points_to_add
    new_level = calculate_level(new_points)
    new_carbon = round((user_data.get('carbon_saved') or 0.0) + carbon_saved, 2)

    transaction.update(user_ref, {
        'points': new_points,
        'level': new_level,
        'carbon_saved': new_carbon,
        'updated_at': firestore.SERVER_TIMESTAMP
    })

    return {
        'points': new_points,
        'level': new_level,
        'carbon_saved': new_carbon,
        'level_up': new_level > calculate_level(old_points)
    }


# Firestore re-runs the function when the document changes underneath it,
# so concurrent awards never overwrite each other.
_award_points_in_transaction = firestore.transactional(_apply_points_award)


class UserService:
    def __init__(self, db):
        self.db = db
        self.users_ref = db.collection('users')

    def create_user_profile(self, user_id, display_name, email=None, school='', photo_url=''):
        """
        Create the Firestore profile for a freshly registered user
        """
        try:
            user_data = {
                'display_name': display_name or 'EcoWarrior',
                'email': email,
                'school': school or '',
                'photo_url': photo_url or '',
                'points': 0,
                'level': 1,
                'carbon_saved': 0.0,
                'created_at': firestore.SERVER_TIMESTAMP,
                'updated_at': firestore.SERVER_TIMESTAMP
            }
            self.users_ref.document(user_id).set(user_data)

            logger.info(f"Created profile for user: {user_id}")
            return UserProfile.model_validate({
                **user_data,
                'id': user_id,
                'created_at': None,
                'updated_at': None
            }).to_public()

        except Exception as e:
            logger.error(f"Error creating user profile: {str(e)}")
            raise DatabaseError(f"Failed to create user profile: {str(e)}")

    def get_user_profile(self, user_id):
        """
        Profile dict, or None when missing or unreadable
        """
        try:
            user_doc = self.users_ref.document(user_id).get()
            if not user_doc.exists:
                return None
            return UserProfile.from_snapshot(user_doc).to_public()
        except Exception as e:
            logger.error(f"Error getting user profile: {str(e)}")
            return None

    def update_user_profile(self, user_id, update_data):
        """
        Update user profile information
        """
        filtered_data = {
            k: v for k, v in update_data.items()
            if k in PROFILE_FIELDS and v is not None
        }
        if not filtered_data:
            raise ValidationError("No valid fields to update")

        try:
            user_ref = self.users_ref.document(user_id)
            if not user_ref.get().exists:
                raise NotFoundError("User not found")

            filtered_data['updated_at'] = firestore.SERVER_TIMESTAMP
            user_ref.update(filtered_data)

            logger.info(f"Updated profile for user: {user_id}")

            return {
                'success': True,
                'updated_fields': [k for k in filtered_data if k != 'updated_at'],
                'message': 'Profile updated successfully'
            }

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error updating user profile: {str(e)}")
            raise DatabaseError(f"Failed to update profile: {str(e)}")

    def award_points(self, user_id, points_to_add, carbon_saved=0.0):
        """
        Atomically add points (and carbon savings) to a user and recompute level.

        Returns {'points', 'level', 'carbon_saved', 'level_up'}.
        """
        if points_to_add < 0:
            raise ValidationError("Points to add cannot be negative")
        if carbon_saved < 0:
            raise ValidationError("Carbon saved cannot be negative")

        try:
            transaction = self.db.transaction()
            result = _award_points_in_transaction(
                transaction,
                self.users_ref.document(user_id),
                points_to_add,
                carbon_saved
            )

            logger.info(f"Awarded {points_to_add} points to user {user_id}: "
                        f"points={result['points']}, level={result['level']}")
            if result['level_up']:
                logger.info(f"User {user_id} reached level {result['level']}")
            return result

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error updating user points: {str(e)}")
            raise DatabaseError(f"Failed to update points: {str(e)}")

    def try_award_points(self, user_id, points_to_add, carbon_saved=0.0):
        """
        award_points for side effects of other writes: failures are logged and
        reported as None so the primary write still succeeds
        """
        try:
            return self.award_points(user_id, points_to_add, carbon_saved)
        except GreenQuestError as e:
            logger.error(f"Points award failed for user {user_id}: {e.message}")
            return None
