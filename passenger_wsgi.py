#!/usr/bin/python3
"""
Passenger WSGI configuration for cPanel deployment
"""
import sys
import os

# Add the current directory to the Python path
sys.path.insert(0, os.path.dirname(__file__))

from app import create_app

application = create_app()

if __name__ == '__main__':
    print(f"Python version: {sys.version}")
    print(f"Current working directory: {os.getcwd()}")

    for module_name in ('flask', 'supabase', 'stripe', 'twilio'):
        try:
            __import__(module_name)
            print(f"{module_name} available")
        except ImportError:
            print(f"{module_name} not installed!")

    print(f"Application: {application}")
    print("WSGI application ready!")
