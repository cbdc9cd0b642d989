"""
Leaderboard Service for GreenQuest
Student and school rankings by points
"""

from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

DEFAULT_USER_LIMIT = 20
DEFAULT_SCHOOL_LIMIT = 10


def rank_entries(items, key='points', limit=None):
    """
    Sort descending by a numeric field and number the result from 1.

    The sort is stable, so ties keep the order items were fetched in, and
    every entry gets its own rank (index + 1).
    """
    ordered = sorted(items, key=lambda item: item.get(key) or 0, reverse=True)
    if limit is not None:
        ordered = ordered[:limit]
    return [{**item, 'rank': index + 1} for index, item in enumerate(ordered)]


class LeaderboardService:
    def __init__(self, db):
        self.db = db
        self.users_ref = db.collection('users')

    def get_leaderboard(self, scope='users', limit=None, current_user_id=None):
        if scope == 'users':
            return self.get_user_leaderboard(limit or DEFAULT_USER_LIMIT, current_user_id)
        elif scope == 'schools':
            return self.get_school_leaderboard(limit or DEFAULT_SCHOOL_LIMIT)
        else:
            raise ValueError("Invalid leaderboard scope")

    def get_user_leaderboard(self, limit=DEFAULT_USER_LIMIT, current_user_id=None):
        """
        Top students by points.

        Fetches every profile and ranks in memory rather than relying on an
        ordered query.
        """
        users = self._fetch_users()
        ranked = rank_entries(users, key='points')

        current_user = None
        if current_user_id:
            current_user = next((u for u in ranked if u['user_id'] == current_user_id), None)

        entries = ranked[:limit]
        return {
            'scope': 'users',
            'entries': entries,
            'current_user': current_user,
            'total_entries': len(entries),
            'total_users': len(ranked),
            'updated_at': datetime.now(timezone.utc)
        }

    def get_school_leaderboard(self, limit=DEFAULT_SCHOOL_LIMIT):
        """
        Schools ranked by the summed points of their students
        """
        schools = {}
        for user in self._fetch_users():
            school = (user.get('school') or '').strip()
            if not school:
                continue
            entry = schools.setdefault(school, {'school': school, 'total_points': 0, 'students': 0})
            entry['total_points'] += user.get('points') or 0
            entry['students'] += 1

        entries = rank_entries(list(schools.values()), key='total_points', limit=limit)
        return {
            'scope': 'schools',
            'entries': entries,
            'total_entries': len(entries),
            'updated_at': datetime.now(timezone.utc)
        }

    def _fetch_users(self):
        try:
            users = []
            for user_doc in self.users_ref.stream():
                user_data = user_doc.to_dict() or {}
                users.append({
                    'user_id': user_doc.id,
                    'display_name': user_data.get('display_name', 'EcoWarrior'),
                    'school': user_data.get('school', ''),
                    'photo_url': user_data.get('photo_url', ''),
                    'points': user_data.get('points', 0),
                    'level': user_data.get('level', 1),
                    'carbon_saved': user_data.get('carbon_saved', 0.0)
                })
            return users
        except Exception as e:
            logger.error(f"Error getting leaderboard users: {str(e)}")
            return []
