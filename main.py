#!/usr/bin/env python3
"""
Main entry point for the Group Meetup API (development server)
"""

import os

from meetup.app import create_app

app = create_app()

if __name__ == '__main__':
    port = int(os.getenv('PORT', '5001'))
    app.run(debug=True, host='0.0.0.0', port=port)
