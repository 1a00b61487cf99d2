# Overview: WSGI entry point (FLASK_APP=wsgi.py).

from catering import create_app

app = create_app()
