#!/usr/bin/env python
# -*- coding: utf-8 -*-
import codecs
import os

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))

with codecs.open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = "\n" + f.read()

about = {}

with open(os.path.join(here, "echoserver", "__version__.py")) as f:
    exec(f.read(), about)

required = [
    "chardet",
    "docopt-ng",
    "pydantic>=2",
    "python-multipart",
    "starlette[full]",
    "uvicorn[standard]",
]


setup(
    name="echo-server",
    version=about["__version__"],
    description="An HTTP echo server that mirrors requests back as responses.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests"]),
    package_data={},
    python_requires=">=3.11",
    setup_requires=[],
    install_requires=required,
    extras_require={
        "develop": [
            "poethepoet",
            "ruff",
            "validate-pyproject",
        ],
        "release": ["build", "twine"],
        "test": [
            "pytest",
            "pytest-cov",
            "pytest-mock",
            "pytest-rerunfailures",
            "requests",
        ],
    },
    entry_points={
        "console_scripts": ["echo-server=echoserver.cli:cli"],
    },
    include_package_data=True,
    license="Apache 2.0",
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Environment :: Web Environment",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Testing",
    ],
)
