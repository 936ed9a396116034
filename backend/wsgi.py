# backend/wsgi.py
from phoneshop import create_app

app = create_app()
