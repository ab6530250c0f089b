import os

from lapa import create_app

# config.py, routes/ and plugins/ are picked up from this directory
app = create_app(root=os.path.dirname(os.path.abspath(__file__)), debug=True)

if __name__ == "__main__":
    app.run()
