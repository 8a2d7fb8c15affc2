"""Flask application setup for ecd_web"""

import logging

from flask import Flask
from flask_cors import CORS

from ecd_core.config import config
from ecd_web.config import MAX_CONTENT_LENGTH
from ecd_web.routes.health import health_bp
from ecd_web.routes.submit import submit_bp

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.enable_debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = Flask(__name__)
CORS(app)

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Register blueprints
app.register_blueprint(health_bp)
app.register_blueprint(submit_bp)
