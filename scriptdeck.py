#!/usr/bin/env python3
"""
Entry point for ScriptDeck.

Loads environment variables, picks the profile and starts the AppController.
"""
import os
from dotenv import load_dotenv
from controllers.app_controller import AppController

def main():
    """Load environment, configure the profile, and run ScriptDeck."""
    load_dotenv()

    config_path = os.getenv("SCRIPTDECK_PROFILE", os.path.join("config", "profiles", "scripts.json"))
    assets_dir = os.getenv("SCRIPTDECK_ASSETS", "assets")
    timeout = os.getenv("SCRIPTDECK_SCRIPT_TIMEOUT")

    app = AppController(config_path, assets_dir, script_timeout=float(timeout) if timeout else None)
    print("[OK] ScriptDeck profile loaded. Press Ctrl+C to exit.")
    app.run()

if __name__ == "__main__":
    main()
