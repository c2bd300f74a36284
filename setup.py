# setup.py
from setuptools import setup, find_packages

setup(
    name="cargoplay",
    version="0.4.0",
    description="Run Rust source files with inline dependency directives, without a Cargo.toml",
    author="Enrique Paredes",
    author_email="eparedesbalen@gmail.com",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"cargoplay": ["interface/locales/*.json"]},
    python_requires=">=3.9",
    install_requires=[
        "toml>=0.10",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        'console_scripts': [
            'cargoplay=cargoplay.main:main',
            'cargo-play=cargoplay.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
