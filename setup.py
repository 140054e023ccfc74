from setuptools import setup, find_packages

setup(
    name="guestbook",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={
        "guestbook": ["templates/html/*.html"],
    },
    install_requires=[
        "jinja2>=3.1.2",
        "markupsafe>=2.1.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
        "pydantic>=2.0.0,<3.0.0",
        "python-dotenv>=1.0.0",
        "sqlalchemy>=2.0.0",
        "werkzeug>=3.0.0",
        "cryptography>=41.0.0"
    ],
    extras_require={
        "dev": [
            "pytest>=7.0"
        ]
    },
    entry_points={
        "console_scripts": [
            "guestbook=guestbook.cli:app",
        ],
    },
    python_requires=">=3.8",
    description="Guestbook web application on a session-backed request context",
    author="Your Organization",
    author_email="example@example.com",
    url="https://github.com/example/guestbook",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
