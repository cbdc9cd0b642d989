"""
Activity Service for GreenQuest
Handles the sustainable-activity log, point and carbon tables, and summaries
"""

from datetime import datetime, timedelta
import logging

import pytz
from firebase_admin import firestore

from greenquest.schemas import ActivityEntry, ActivityLogRequest
from greenquest.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)

# Single-choice categories: fixed value per choice
CHOICE_POINTS = {
    'transportation': {'bus': 10, 'bike': 15, 'carpool': 5, 'car': 0},
    'food': {'vegan': 15, 'vegetarian': 10, 'local': 5, 'standard': 0},
    'shopping': {'secondhand': 15, 'eco-friendly': 10, 'local-business': 5, 'no-purchase': 5},
}

# kg CO2 saved per choice
CHOICE_CARBON = {
    'transportation': {'bus': 2.5, 'bike': 4.0, 'carpool': 1.5, 'car': 0.0},
    'food': {'vegan': 2.0, 'vegetarian': 1.5, 'local': 0.5, 'standard': 0.0},
    'shopping': {'secondhand': 3.0, 'eco-friendly': 1.0, 'local-business': 0.5, 'no-purchase': 1.0},
}

# Checklist categories: each ticked item adds its value
CHECKLIST_POINTS = {
    'water': {'water_bottle': 5, 'water_off': 5},
    'energy': {'lights_off': 5, 'natural_light': 5, 'unplug_electronics': 5, 'use_fan': 10},
    'waste': {'recycled': 5, 'composted': 10, 'reusable_container': 5, 'refused_items': 5},
}

CHECKLIST_CARBON = {
    'water': {'water_bottle': 0.5, 'water_off': 0.3},
    'energy': {'lights_off': 0.2, 'natural_light': 0.2, 'unplug_electronics': 0.3, 'use_fan': 0.5},
    'waste': {'recycled': 0.3, 'composted': 0.5, 'reusable_container': 0.2, 'refused_items': 0.1},
}

# (max minutes, points, kg CO2), first match wins
SHOWER_TIERS = (
    (3, 15, 1.5),
    (5, 10, 1.0),
    (8, 5, 0.5),
)


def _shower_tier(value):
    shower_length = value.get('shower_length')
    if shower_length is None:
        return 0, 0.0
    for max_minutes, points, carbon in SHOWER_TIERS:
        if shower_length <= max_minutes:
            return points, carbon
    return 0, 0.0


def calculate_activity_points(category, value):
    """
    Points for an activity. Pure lookup over fixed tables; anything unknown is
    worth 0.
    """
    if category in CHOICE_POINTS:
        return CHOICE_POINTS[category].get(value, 0) if isinstance(value, str) else 0

    if category in CHECKLIST_POINTS:
        if not isinstance(value, dict):
            return 0
        points = sum(
            item_points for item, item_points in CHECKLIST_POINTS[category].items()
            if value.get(item)
        )
        if category == 'water':
            points += _shower_tier(value)[0]
        return points

    return 0


def estimate_carbon_saved(category, value):
    """
    Rough kg CO2 saved by an activity
    """
    if category in CHOICE_CARBON:
        return CHOICE_CARBON[category].get(value, 0.0) if isinstance(value, str) else 0.0

    if category in CHECKLIST_CARBON:
        if not isinstance(value, dict):
            return 0.0
        carbon = sum(
            item_carbon for item, item_carbon in CHECKLIST_CARBON[category].items()
            if value.get(item)
        )
        if category == 'water':
            carbon += _shower_tier(value)[1]
        return round(carbon, 2)

    return 0.0


def _timestamp_key(item):
    ts = item.get('timestamp')
    return ts.timestamp() if hasattr(ts, 'timestamp') else 0


class ActivityService:
    def __init__(self, db, user_service, timezone='Pacific/Honolulu'):
        self.db = db
        self.activities_ref = db.collection('activities')
        self.user_service = user_service
        self.timezone = pytz.timezone(timezone)

    def log_activity(self, user_id, category, value):
        """
        Append an activity entry and award its points and carbon savings to
        the user.

        The entry is the primary write; if the award fails the entry stays and
        the returned 'user' is None.
        """
        request = ActivityLogRequest.model_validate({'category': category, 'value': value})

        points = calculate_activity_points(request.category, request.value)
        carbon_saved = estimate_carbon_saved(request.category, request.value)

        try:
            _, activity_ref = self.activities_ref.add({
                'user_id': user_id,
                'category': request.category,
                'value': request.value,
                'points': points,
                'carbon_saved': carbon_saved,
                'timestamp': firestore.SERVER_TIMESTAMP
            })
        except Exception as e:
            logger.error(f"Error logging activity: {str(e)}")
            raise DatabaseError(f"Failed to log activity: {str(e)}")

        logger.info(f"Activity logged - User: {user_id}, Category: {request.category}, Points: {points}")

        user_result = self.user_service.try_award_points(user_id, points, carbon_saved)

        return {
            'activity_id': activity_ref.id,
            'category': request.category,
            'value': request.value,
            'points': points,
            'carbon_saved': carbon_saved,
            'user': user_result,
            'message': f"Your {request.category} activity has been recorded and {points} points added to your account."
        }

    def get_user_activities(self, user_id, limit=10):
        """
        Most recent activities first. Filter by user only and sort here, so no
        composite index is needed.
        """
        try:
            activities = self._fetch_user_activities(user_id)
            activities.sort(key=_timestamp_key, reverse=True)
            return activities[:limit]
        except Exception as e:
            logger.error(f"Error getting user activities: {str(e)}")
            return []

    def get_activity_summary(self, user_id, now=None):
        """
        Points and carbon for today and the last 7 days, counted in local
        (Hawaii) time, plus totals per category
        """
        local_now = (now or datetime.now(pytz.UTC)).astimezone(self.timezone)
        start_of_today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_week = start_of_today - timedelta(days=6)

        summary = {
            'today': {'activities': 0, 'points': 0, 'carbon_saved': 0.0},
            'this_week': {'activities': 0, 'points': 0, 'carbon_saved': 0.0},
            'categories': {},
            'timezone': self.timezone.zone
        }

        try:
            activities = self._fetch_user_activities(user_id)
        except Exception as e:
            logger.error(f"Error getting activity summary: {str(e)}")
            return summary

        for activity in activities:
            category = activity['category']
            bucket = summary['categories'].setdefault(category, {'count': 0, 'points': 0})
            bucket['count'] += 1
            bucket['points'] += activity['points']

            ts = activity.get('timestamp')
            if not ts:
                continue
            local_ts = ts.astimezone(self.timezone)
            periods = []
            if local_ts >= start_of_week:
                periods.append('this_week')
            if local_ts >= start_of_today:
                periods.append('today')
            for period in periods:
                summary[period]['activities'] += 1
                summary[period]['points'] += activity['points']
                summary[period]['carbon_saved'] = round(
                    summary[period]['carbon_saved'] + activity['carbon_saved'], 2
                )

        return summary

    def _fetch_user_activities(self, user_id):
        activities = []
        for doc in self.activities_ref.where('user_id', '==', user_id).stream():
            try:
                activities.append(ActivityEntry.from_snapshot(doc).to_public())
            except ValueError as e:
                logger.warning(f"Skipping malformed activity {doc.id}: {str(e)}")
        return activities
