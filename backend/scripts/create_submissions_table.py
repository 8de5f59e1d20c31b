#!/usr/bin/env python3
"""
Command-line script for creating the DynamoDB submissions table.

Usage:
    python scripts/create_submissions_table.py [--table NAME] [--region REGION]
                                               [--endpoint-url URL] [--status]

Options:
    --table         Table name (default: $SUBMISSIONS_TABLE or form-submissions-dev)
    --region        AWS region (default: $AWS_DEFAULT_REGION or us-west-2)
    --endpoint-url  Custom endpoint, e.g. http://localhost:8000 for DynamoDB Local
    --status        Show connectivity and submission count instead of creating
"""

import argparse
import logging
import os
import sys

import boto3
from botocore.exceptions import BotoCoreError, ClientError

# Add the src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from services.submission_store import (  # noqa: E402
    DynamoDBSubmissionStore,
    StorageUnavailableError,
    create_submissions_table,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def show_status(store: DynamoDBSubmissionStore):
    """Print table connectivity and submission count."""
    print("\n" + "=" * 50)
    print("SUBMISSIONS TABLE STATUS")
    print("=" * 50)
    print(f"Status: {store.status_label()}")
    try:
        print(f"Submissions: {store.count()}")
    except StorageUnavailableError as e:
        logger.error("Failed to count submissions: %s", e)
        sys.exit(1)
    print("=" * 50)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Create the DynamoDB table for form submissions"
    )
    parser.add_argument(
        "--table",
        default=os.environ.get("SUBMISSIONS_TABLE", "form-submissions-dev"),
        help="Table name",
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_DEFAULT_REGION", "us-west-2"),
        help="AWS region",
    )
    parser.add_argument(
        "--endpoint-url",
        default=os.environ.get("DYNAMODB_ENDPOINT_URL"),
        help="Custom DynamoDB endpoint",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show table status instead of creating it",
    )

    args = parser.parse_args()

    dynamodb = boto3.resource(
        "dynamodb", region_name=args.region, endpoint_url=args.endpoint_url
    )
    logger.info("Using DynamoDB table: %s", args.table)

    if args.status:
        show_status(DynamoDBSubmissionStore(dynamodb.Table(args.table)))
        return

    try:
        create_submissions_table(dynamodb, args.table)
    except ClientError as e:
        logger.error("AWS error: %s", e.response["Error"]["Message"])
        sys.exit(1)
    except BotoCoreError as e:
        logger.error("Failed to reach DynamoDB: %s", e)
        sys.exit(1)

    print(f"✅ Table {args.table} is ready")


if __name__ == "__main__":
    main()
