# backend/wsgi.py
from roomcount import create_app

app = create_app()
