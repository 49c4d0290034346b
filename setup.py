#!/usr/bin/env python3
"""Setup script for PPPoE Diagnostics"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / 'README.md'
long_description = readme_file.read_text() if readme_file.exists() else ''

# Read requirements
requirements_file = Path(__file__).parent / 'requirements.txt'
requirements = []
if requirements_file.exists():
    requirements = [
        line.strip()
        for line in requirements_file.read_text().splitlines()
        if line.strip() and not line.startswith('#')
    ]

setup(
    name='pppoe-diagnostics',
    version='1.0.0',
    description='PPPoE connection diagnostics with safe Wi-Fi adapter toggling',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Your Name',
    license='GPL-3.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    py_modules=['__version__'],
    install_requires=requirements,
    extras_require={
        'test': ['pytest>=7.0.0'],
    },
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'pppoe-diag=cli.diagnose:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: System :: Networking',
        'Topic :: System :: Systems Administration',
    ],
    keywords='pppoe networkmanager network diagnostics wifi routing',
    include_package_data=True,
    zip_safe=False,
)
