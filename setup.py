#!/usr/bin/env python3
"""
Setup script for PaperSite - blog indexing and preview image builder.
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='papersite',
    version='1.0.0',
    description='Slugs, taxonomies, post listings and social preview images for a Markdown blog',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Text Processing :: Markup',
    ],
    python_requires='>=3.9',
    install_requires=[
        'PyYAML>=6.0',
        'Pillow>=10.1',
        'requests>=2.28',
        'mistune>=3.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'papersite=papersite_pkg.cli:main',
        ],
    },
    keywords='blog, markdown, slug, taxonomy, open graph, static site',
)
