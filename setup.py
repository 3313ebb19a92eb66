#!/usr/bin/env python

from setuptools import setup

setup(
    name="s3browser",
    version="0.1.0",
    description="API for paginated, cached browsing of S3 buckets",
    packages=["s3browser", "s3browser.api", "s3browser.cache", "s3browser.objectstorage"],
    include_package_data=True,
    zip_safe=False,
    keywords=["API", "S3", "redis"],
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "aiobotocore",
        "types-aiobotocore-s3",
        "redis>=5.0.1",
    ],
    extras_require={
        'dev': [
            'pytest',
            'anyio',
            'httpx',
            'fakeredis>=2.20',
            'mypy',
            'flake8',
            'pre-commit',
        ]
    },
    entry_points={
        'console_scripts': [
            's3browser = s3browser.__main__:main'
        ]
    },
)
