#!/usr/bin/python3
# Setup file for gitgate
# Copyright (C) 2026 The gitgate Authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["aiohttp>=3.9", "urllib3>=1.25"]


setup(
    name="gitgate",
    version="0.1.0",
    description="Git smart HTTP server",
    long_description="Serve a directory of git repositories over the smart and "
    "dumb HTTP protocols, from any WSGI server or from aiohttp.",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["gitgate", "gitgate.aiohttp"],
    package_data={"": ["py.typed"]},
    install_requires=["dulwich>=0.22.0"],
    extras_require={
        "aiohttp": ["aiohttp>=3.9"],
        "test": tests_require,
    },
    entry_points={
        "console_scripts": [
            "gitgate=gitgate.web:main",
            "gitgate-aiohttp=gitgate.aiohttp.server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
