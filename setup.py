from setuptools import setup


setup(
    name="ledger-import",
    version="0.1.0",
    description="Format-inferring import pipeline for bank statements, financial statements and simple ledger exports",
    packages=["ledger_import"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "ledger-import=ledger_import.cli:main",
        ]
    },
)
