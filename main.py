"""
GreenQuest Backend - Environmental Points and Student Marketplace
Firebase Cloud Functions + Firestore Backend

Main entry point for the Flask API wrapped as Firebase Functions
"""

import atexit

from firebase_functions import https_fn, options

from greenquest.app import create_app
from greenquest.config import Config
from greenquest.firebase import FirebaseClients

config = Config.from_env()

# Firebase clients live for the whole process and are released on exit
firebase = FirebaseClients.initialize(config)
atexit.register(firebase.close)

app = create_app(config, firebase)


# Firebase Cloud Function wrapper
@https_fn.on_request(
    cors=options.CorsOptions(
        cors_origins=config.allowed_origins,
        cors_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )
)
def api(req):
    """Main Cloud Function entry point"""
    with app.request_context(req.environ):
        return app.full_dispatch_request()


# For local development
if __name__ == '__main__':
    app.run(debug=config.debug, host='0.0.0.0', port=8080)
