# backend/wsgi.py
from ezorder import create_app

app = create_app()
