"""Setup configuration file."""

from setuptools import setup


def readme():
    """Open the readme."""
    with open('README.md') as f:
        return f.read()

setup(
    name='sftpgateway',
    version='1.0.0',
    description='An SFTP gateway in front of a pricelist store and an order inbox.',
    long_description=readme(),
    long_description_content_type='text/markdown',

    license='MIT',

    packages=['sftpgateway', 'sftpgateway.adapters', 'sftpgateway.tests'],
    scripts=['bin/sftpgateway'],
    python_requires='>=3.8',
    install_requires=[
        'paramiko',
        'bcrypt',
        'boto3',
        'requests',
        'SQLAlchemy>=1.4',
        'python-dotenv',
    ],
    extras_require={
        'test': ['pytest'],
        'postgres': ['psycopg2-binary'],
    },

    keywords=["sftpgateway", "sftp", "ssh", "s3", "gateway"],
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Development Status :: 5 - Production/Stable",
        "Environment :: No Input/Output (Daemon)",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Internet :: File Transfer Protocol (FTP)",
        "Topic :: Utilities"
    ],

    zip_safe=False,
    include_package_data=True,
)
