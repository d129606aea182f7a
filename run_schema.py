#!/usr/bin/env python3
"""Create the Postgres tables read and written by the subscription module"""

import os
import sys

import psycopg2

DATABASE_URL = os.environ.get('DATABASE_URL')

# Define each SQL statement explicitly
STATEMENTS = [
    # PART 1: EXTENSIONS
    ('Enable pgcrypto extension',
     'CREATE EXTENSION IF NOT EXISTS "pgcrypto"'),

    # PART 2: ENUMS
    ('Create subscription_plan enum', '''
DO $$ BEGIN
  CREATE TYPE subscription_plan AS ENUM ('FREE', 'BASIC', 'PRO', 'ENTERPRISE');
EXCEPTION WHEN duplicate_object THEN NULL;
END $$'''),

    ('Create invoice_type enum', '''
DO $$ BEGIN
  CREATE TYPE invoice_type AS ENUM ('INVOICE', 'PROFORMA');
EXCEPTION WHEN duplicate_object THEN NULL;
END $$'''),

    # PART 3: STORE PROFILES
    ('Create store_profiles table', '''
CREATE TABLE IF NOT EXISTS store_profiles (
  id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
  name TEXT NOT NULL,
  gstin TEXT,
  plan subscription_plan NOT NULL DEFAULT 'FREE',
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)'''),

    # PART 4: INVOICES (counted for the monthly bill limit)
    ('Create invoices table', '''
CREATE TABLE IF NOT EXISTS invoices (
  id VARCHAR PRIMARY KEY DEFAULT gen_random_uuid(),
  store_id VARCHAR NOT NULL REFERENCES store_profiles(id),
  invoice_number TEXT NOT NULL UNIQUE,
  date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
  type invoice_type NOT NULL DEFAULT 'INVOICE',
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)'''),

    # PART 5: INDEXES
    ('Create invoices store/date index',
     'CREATE INDEX IF NOT EXISTS idx_invoices_store_date ON invoices(store_id, date)'),
]


def main():
    if not DATABASE_URL:
        print("DATABASE_URL not set", file=sys.stderr)
        sys.exit(1)

    print("Connecting to Postgres...")
    conn = psycopg2.connect(DATABASE_URL, connect_timeout=10)
    conn.autocommit = True
    cur = conn.cursor()

    print("Running schema...\n")
    success_count = 0
    error_count = 0

    for desc, sql in STATEMENTS:
        print(f"  {desc}...", end=" ")
        try:
            cur.execute(sql)
            print("OK")
            success_count += 1
        except psycopg2.Error as e:
            print(f"ERROR: {e}")
            error_count += 1

    print(f"\nSchema execution complete! {success_count} succeeded, {error_count} errors")

    cur.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name;")
    tables = cur.fetchall()
    print(f"\nTables: {[t[0] for t in tables]}")

    cur.close()
    conn.close()
    print("\nConnection closed.")
    return 1 if error_count else 0


if __name__ == '__main__':
    sys.exit(main())
