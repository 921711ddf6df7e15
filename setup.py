from setuptools import setup, find_packages

setup(
    name="caip-analytics",
    version="1.2.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "pandas>=2.0",
        "numpy>=1.24",
        "python-dateutil>=2.8",
        "PyYAML>=6.0",
        "openpyxl>=3.1",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "caip=caip.cli:main",
        ],
    },
    python_requires=">=3.8",
    description="Primary-care demand, follow-up and workforce capacity analytics with national benchmarking",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Healthcare Industry",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ]
)
