# backend/wsgi.py
from courseshop import create_app

app = create_app()
