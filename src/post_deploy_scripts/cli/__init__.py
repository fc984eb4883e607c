"""
Command line interface for post deploy scripts.
"""

from post_deploy_scripts.cli.app import app

__all__ = ["app"]
