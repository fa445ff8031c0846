# backend/wsgi.py
from drivncook import create_app

app = create_app()
