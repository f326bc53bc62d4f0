"""setuptools setup for FocusPair.

Install for development:
    pip install -e ".[test]"
    python -m focuspair
"""

from setuptools import setup, find_packages

setup(
    name="FocusPair",
    version="0.1.0",
    description="Interval/focus timer engine with a phone-watch synced session store",
    packages=find_packages(include=["focuspair", "focuspair.*"]),
    python_requires=">=3.11",
    install_requires=[
        "PyQt6>=6.5",
        "SQLAlchemy>=2.0",
        "loguru>=0.7",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "focuspair=focuspair.__main__:main",
        ],
    },
)
