"""
Mars Rover Explorer integration for Unfolded Circle Remote.

Shows random photos from the NASA Mars Rover Photos API and lets the user
ban rovers, cameras or dates they do not want to see again.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

__version__ = "0.1.0"
__author__ = "Meir Miyara"
__email__ = "meir.miyara@gmail.com"
