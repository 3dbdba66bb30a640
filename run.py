"""
Application Entry Point
Configures logging, registers maintenance commands and runs the Flask app
"""

import os
import logging
import click
from stockroom import create_app, db

# Determine configuration environment
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Setup logging
os.makedirs(app.config['LOG_FOLDER'], exist_ok=True)

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(app.config['LOG_FOLDER'], 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@app.shell_context_processor
def make_shell_context():
    """Make database, models and the data store available in Flask shell"""
    from stockroom import models
    from stockroom.services.data_store import get_data_store
    return {
        'db': db,
        'store': get_data_store(),
        'User': models.User,
        'InventoryItem': models.InventoryItem,
        'StockMovement': models.StockMovement,
        'ItemRequest': models.ItemRequest
    }


@app.cli.command()
def init_db():
    """Create all database tables"""
    logger.info("Initializing database...")
    db.create_all()
    logger.info("Database initialized successfully!")


@app.cli.command()
@click.option('--email', default=lambda: os.environ.get('ADMIN_EMAIL', 'admin@example.com'))
@click.option('--password', default=lambda: os.environ.get('ADMIN_PASSWORD'))
@click.option('--name', 'full_name', default='Administrator')
@click.option('--department', default='Administration')
def create_admin(email, password, full_name, department):
    """Create an approved admin account"""
    from stockroom.errors import StockroomError
    from stockroom.services.data_store import get_data_store
    from stockroom.services.user_service import UserService

    if not password:
        raise click.UsageError("Provide --password or set ADMIN_PASSWORD")

    service = UserService(get_data_store(), app.config['MIN_PASSWORD_LENGTH'])
    try:
        result = service.create_user({
            'full_name': full_name,
            'email': email,
            'password': password,
            'department': department,
            'role': 'admin'
        })
    except StockroomError as e:
        raise click.ClickException(e.message)
    logger.info(f"Admin account created: {result.data['user']['email']}")


@app.cli.command()
@click.confirmation_option(prompt='This deletes every stock movement. Continue?')
def clear_movements():
    """Delete the entire stock movement log"""
    from stockroom.services.data_store import get_data_store
    count = get_data_store().clear_movements()
    logger.info(f"Removed {count} stock movement(s)")


if __name__ == '__main__':
    is_dev = os.environ.get('FLASK_ENV', 'development') == 'development'

    with app.app_context():
        # Create tables if they don't exist
        db.create_all()
        logger.info("Database tables created")

    logger.info(f"Starting {app.config['ORGANIZATION_NAME']} inventory service...")
    app.run(
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5001)),
        debug=is_dev
    )
