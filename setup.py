from setuptools import setup, find_packages

setup(
    name="signage-pairing",
    version="0.1.0",
    description="Screen activation and device binding service for digital signage, with a player client",
    author="Matt Skillman",
    packages=(
        find_packages(where="src")
        + find_packages(include=["signage", "signage.*"], exclude=["signage.tests"])
    ),
    package_dir={"": "src", "signage": "signage"},
    python_requires=">=3.8",
    install_requires=[
        "Flask>=3.0.0",
        "Flask-SQLAlchemy>=3.1.0",
        "SQLAlchemy>=2.0.0",
        "Flask-Migrate>=4.0.0",
        "Flask-Login>=0.6.3",
        "Flask-Talisman>=1.1.0",
        "Flask-Limiter>=3.5.0",
        "Werkzeug>=3.0.0",
        "PyYAML>=6.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "pylint>=2.17.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "signage-player=player.runner:main",
        ]
    },
)
