"""
Chat Service for GreenQuest
Buyer/seller conversations attached to a marketplace listing
"""

import logging

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from greenquest.schemas import Chat, ChatMessage, MessageCreate
from greenquest.utils.error_handler import (
    AuthorizationError,
    DatabaseError,
    GreenQuestError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def chat_id_for(listing_id, buyer_id):
    """
    One conversation per (listing, buyer): the pair is the document id
    """
    return f"{listing_id}_{buyer_id}"


def _time_key(field):
    def key(item):
        ts = item.get(field)
        return ts.timestamp() if hasattr(ts, 'timestamp') else 0
    return key


class ChatService:
    def __init__(self, db, marketplace_service):
        self.db = db
        self.chats_ref = db.collection('chats')
        self.listings_ref = db.collection('marketplace')
        self.marketplace_service = marketplace_service

    def create_chat(self, listing_id, buyer_id):
        """
        Open (or reopen) the buyer's conversation with the listing's seller.

        The document is written with create(), which fails if it already
        exists, so two simultaneous requests still yield a single chat.
        """
        try:
            listing_doc = self.listings_ref.document(listing_id).get()
            if not listing_doc.exists:
                raise NotFoundError("Listing not found")

            seller_id = listing_doc.to_dict().get('seller_id')
            if not seller_id:
                raise NotFoundError("Listing has no seller")
            if seller_id == buyer_id:
                raise ValidationError("You cannot start a chat about your own listing")

            chat_id = chat_id_for(listing_id, buyer_id)
            try:
                self.chats_ref.document(chat_id).create({
                    'listing_id': listing_id,
                    'participants': [buyer_id, seller_id],
                    'last_message': '',
                    'last_message_time': firestore.SERVER_TIMESTAMP,
                    'created_at': firestore.SERVER_TIMESTAMP
                })
                created = True
                logger.info(f"Chat created: {chat_id}")
            except gcp_exceptions.AlreadyExists:
                created = False

            return {'chat_id': chat_id, 'created': created}

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error creating chat: {str(e)}")
            raise DatabaseError(f"Failed to create chat: {str(e)}")

    def send_message(self, chat_id, sender_id, message):
        text = MessageCreate.model_validate({'message': message}).message

        try:
            chat_ref = self.chats_ref.document(chat_id)
            self._get_chat_for_participant(chat_ref, sender_id)

            # Message and chat preview land in one commit
            message_ref = chat_ref.collection('messages').document()
            batch = self.db.batch()
            batch.set(message_ref, {
                'sender_id': sender_id,
                'message': text,
                'timestamp': firestore.SERVER_TIMESTAMP
            })
            batch.update(chat_ref, {
                'last_message': text,
                'last_message_time': firestore.SERVER_TIMESTAMP
            })
            batch.commit()

            return {'message_id': message_ref.id, 'chat_id': chat_id}

        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error sending message: {str(e)}")
            raise DatabaseError(f"Failed to send message: {str(e)}")

    def get_chat_messages(self, chat_id, user_id):
        """
        Messages oldest first. Only participants may read them.
        """
        chat_ref = self.chats_ref.document(chat_id)
        try:
            self._get_chat_for_participant(chat_ref, user_id)
        except GreenQuestError:
            raise
        except Exception as e:
            logger.error(f"Error fetching chat: {str(e)}")
            return []

        try:
            query = chat_ref.collection('messages').order_by('timestamp', direction=firestore.Query.ASCENDING)
            return self._to_messages(query.stream())
        except Exception as e:
            logger.error(f"Error fetching messages: {str(e)}")
            return []

    def get_user_chats(self, user_id):
        """
        The user's conversations, most recently active first, each with its
        listing and the other participant's id
        """
        try:
            chat_docs = self.chats_ref.where('participants', 'array_contains', user_id).stream()
            chats = []
            for doc in chat_docs:
                try:
                    chats.append(Chat.from_snapshot(doc).to_public())
                except ValueError as e:
                    logger.warning(f"Skipping malformed chat {doc.id}: {str(e)}")
        except Exception as e:
            logger.error(f"Error fetching user chats: {str(e)}")
            return []

        for chat in chats:
            chat['listing'] = self.marketplace_service.get_listing(chat['listing_id'])
            chat['other_participant'] = next(
                (p for p in chat['participants'] if p != user_id), None
            )

        chats.sort(key=_time_key('last_message_time'), reverse=True)
        return chats

    def subscribe_to_messages(self, chat_id, callback):
        """
        Listen for message changes in a chat. callback receives the full,
        ordered message list on every change.

        Returns the Firestore watch; call unsubscribe() on it to stop.
        """
        query = self.chats_ref.document(chat_id).collection('messages').order_by('timestamp')

        def on_snapshot(docs, changes, read_time):
            try:
                callback(self._to_messages(docs))
            except Exception as e:
                logger.error(f"Error in message subscriber for chat {chat_id}: {str(e)}")

        return query.on_snapshot(on_snapshot)

    def _get_chat_for_participant(self, chat_ref, user_id):
        chat_doc = chat_ref.get()
        if not chat_doc.exists:
            raise NotFoundError("Chat not found")
        chat = chat_doc.to_dict()
        if user_id not in chat.get('participants', []):
            raise AuthorizationError("You are not a participant in this chat")
        return chat

    def _to_messages(self, docs):
        messages = []
        for doc in docs:
            try:
                messages.append(ChatMessage.from_snapshot(doc).to_public())
            except ValueError as e:
                logger.warning(f"Skipping malformed message {doc.id}: {str(e)}")
        return messages
