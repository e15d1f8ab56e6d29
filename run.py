"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py db upgrade
    flask --app run.py seed-users
    flask --app run.py --debug run

"""

from po_workflow import create_app

# WSGI application object. `flask run` looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only); use `flask run` or a WSGI server otherwise.
    app.run(debug=True)
