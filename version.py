"""Version information for Qiyas"""

__version__ = "1.0.0"
__application__ = "Qiyas"
__description__ = "Frameworks, controls and weighted assessment criteria (English / Arabic)"
