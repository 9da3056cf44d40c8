from setuptools import setup, find_packages
import re

# Read version from driveup/__init__.py
with open('driveup/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='driveup',
    version=version,
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'google-api-python-client',
        'google-auth',
        'google-auth-oauthlib',
        'requests',
        'python-dotenv',
        'click>=8.0',
        'PyYAML',
    ],
    extras_require={
        'test': ['pytest', 'httplib2'],
    },
    entry_points={
        'console_scripts': [
            'driveup=driveup.cli.__main__:main',
        ],
    },
    author='CLI Developer',
    description='Resumable, verified large-file uploads to Google Drive - SDK and CLI.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
