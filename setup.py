from setuptools import setup


setup(
    name="billing-doctor",
    version="0.1.0",
    description="Local timesheet narrative rules for legal billing: name standardisation and missing-time checks",
    packages=["billing_doctor"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "billing-doctor=billing_doctor.cli:main",
        ]
    },
)
