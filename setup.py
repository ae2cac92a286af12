#!/usr/bin/env python3
"""
Setup script for Folio - portfolio and blog static site generator.
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='folio',
    version='1.0.0',
    description='A static site generator for a personal portfolio and blog',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'folio_pkg': [
            'templates/*.html',
            'templates/**/*.html',
            'assets/css/*.css',
            'assets/js/*.js',
        ],
    },
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Software Development :: Code Generators',
        'Topic :: Text Processing :: Markup :: HTML',
    ],
    python_requires='>=3.9',
    install_requires=[
        'Jinja2>=3.0',
        'mistune>=3.0',
        'PyYAML>=6.0',
        'requests>=2.25',
        'Pillow>=9.1',
        'csscompressor>=0.9.5',
        'rjsmin>=1.2',
        'Pygments>=2.10',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'folio=folio_pkg.cli:main',
        ],
    },
    keywords='static site generator, portfolio, blog, markdown, mdx, jinja2, rss',
)
