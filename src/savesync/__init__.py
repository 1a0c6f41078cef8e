"""
SaveSync — versioned save-data snapshots with cloud staging.

Back up every save. Keep the newest few. Zip the ones worth keeping
and push them to the cloud. Roll back when a save goes bad.
"""

import os

__version__ = "0.1.0"
__author__ = "SaveSync contributors"

SAVESYNC_HOME = os.environ.get("SAVESYNC_HOME", "~/.savesync")
