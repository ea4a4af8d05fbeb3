"""
Database schema definitions.
Table creation, indexes, and structure management.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'audit_logs',
        'booking_logs',
        'payments',
        'reschedule_offers',
        'guest_tokens',
        'passengers',
        'bookings',
        'blackout_dates',
        'availability_windows',
        'trip_types',
        'vessels',
        'profiles'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Captains
    db.execute('''
        CREATE TABLE profiles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            business_name TEXT,
            phone TEXT,
            timezone TEXT DEFAULT 'America/New_York',
            brand_color TEXT DEFAULT '#06b6d4',
            cancellation_policy TEXT,
            meeting_spot_name TEXT,
            meeting_spot_address TEXT,
            meeting_spot_latitude REAL,
            meeting_spot_longitude REAL,
            advance_booking_days INTEGER DEFAULT 60,
            booking_buffer_minutes INTEGER DEFAULT 60,
            show_email_publicly INTEGER DEFAULT 0,
            show_phone_publicly INTEGER DEFAULT 0,
            stripe_connected INTEGER DEFAULT 0,
            stripe_account_id TEXT,
            venmo_enabled INTEGER DEFAULT 0,
            venmo_username TEXT,
            zelle_enabled INTEGER DEFAULT 0,
            zelle_contact TEXT,
            auto_confirm_alt_payments INTEGER DEFAULT 1,
            is_hibernating INTEGER DEFAULT 0,
            hibernation_message TEXT,
            hibernation_end_date TEXT,
            hibernation_show_return_date INTEGER DEFAULT 0,
            hibernation_allow_notifications INTEGER DEFAULT 0,
            hibernation_show_contact_info INTEGER DEFAULT 0,
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    # 2. Offerings
    db.execute('''
        CREATE TABLE vessels (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            capacity INTEGER NOT NULL DEFAULT 6,
            description TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE trip_types (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            duration_hours REAL NOT NULL,
            price_total REAL NOT NULL DEFAULT 0,
            deposit_amount REAL NOT NULL DEFAULT 0,
            is_active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 3. Schedule
    db.execute('''
        CREATE TABLE availability_windows (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            day_of_week INTEGER NOT NULL CHECK(day_of_week BETWEEN 0 AND 6),
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            is_active INTEGER DEFAULT 1,
            UNIQUE(owner_id, day_of_week)
        )
    ''')

    db.execute('''
        CREATE TABLE blackout_dates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            blackout_date DATE NOT NULL,
            reason TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(owner_id, blackout_date)
        )
    ''')

    # 4. Bookings
    db.execute('''
        CREATE TABLE bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            captain_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            trip_type_id INTEGER REFERENCES trip_types(id) ON DELETE SET NULL,
            vessel_id INTEGER REFERENCES vessels(id) ON DELETE SET NULL,
            guest_name TEXT NOT NULL,
            guest_email TEXT NOT NULL,
            guest_phone TEXT,
            party_size INTEGER NOT NULL DEFAULT 1,
            scheduled_start TEXT NOT NULL,
            scheduled_end TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending_deposit',
            payment_status TEXT NOT NULL DEFAULT 'unpaid',
            payment_method TEXT,
            total_price_cents INTEGER NOT NULL DEFAULT 0,
            deposit_paid_cents INTEGER NOT NULL DEFAULT 0,
            balance_due_cents INTEGER NOT NULL DEFAULT 0,
            weather_hold_reason TEXT,
            original_date_if_rescheduled TEXT,
            payment_reminder_count INTEGER NOT NULL DEFAULT 0,
            payment_reminder_last_sent TEXT,
            internal_notes TEXT,
            captain_notes TEXT,
            special_requests TEXT,
            tags TEXT DEFAULT '[]',
            confirmation_code TEXT UNIQUE,
            management_token TEXT UNIQUE,
            deposit_paid_at TEXT,
            balance_paid_at TEXT,
            stripe_session_id TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(scheduled_end > scheduled_start),
            CHECK(status IN ('pending_deposit', 'confirmed', 'weather_hold', 'rescheduled',
                             'completed', 'cancelled', 'no_show', 'expired')),
            CHECK(payment_status IN ('unpaid', 'pending_verification', 'deposit_paid',
                                     'fully_paid', 'partially_refunded', 'fully_refunded'))
        )
    ''')

    db.execute('''
        CREATE TABLE passengers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            full_name TEXT NOT NULL,
            email TEXT,
            phone TEXT,
            is_primary_contact INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE guest_tokens (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            token TEXT UNIQUE NOT NULL,
            expires_at TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE reschedule_offers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            proposed_start TEXT NOT NULL,
            proposed_end TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            is_selected INTEGER DEFAULT 0,
            selected_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            amount_cents INTEGER NOT NULL,
            payment_type TEXT NOT NULL CHECK(payment_type IN ('deposit', 'balance', 'tip', 'refund')),
            status TEXT NOT NULL DEFAULT 'succeeded',
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 5. Timelines
    db.execute('''
        CREATE TABLE booking_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            entry_type TEXT NOT NULL,
            description TEXT NOT NULL,
            old_value TEXT,
            new_value TEXT,
            actor_type TEXT NOT NULL DEFAULT 'system',
            actor_id INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER REFERENCES profiles(id) ON DELETE SET NULL,
            action TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER,
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""

    # Booking indexes
    db.execute('CREATE INDEX idx_bookings_captain_start ON bookings(captain_id, scheduled_start)')
    db.execute('CREATE INDEX idx_bookings_status ON bookings(status)')
    db.execute('CREATE INDEX idx_bookings_payment_status ON bookings(payment_status)')
    db.execute('CREATE INDEX idx_bookings_guest_email ON bookings(guest_email)')

    # Offering indexes
    db.execute('CREATE INDEX idx_trip_types_owner ON trip_types(owner_id)')
    db.execute('CREATE INDEX idx_vessels_owner ON vessels(owner_id)')

    # Related row indexes
    db.execute('CREATE INDEX idx_passengers_booking ON passengers(booking_id)')
    db.execute('CREATE INDEX idx_reschedule_offers_booking ON reschedule_offers(booking_id)')
    db.execute('CREATE INDEX idx_payments_booking ON payments(booking_id)')

    # Timeline indexes
    db.execute('CREATE INDEX idx_booking_logs_booking ON booking_logs(booking_id, created_at)')
    db.execute('CREATE INDEX idx_audit_logs_entity ON audit_logs(entity_type, entity_id)')
    db.execute('CREATE INDEX idx_audit_logs_created ON audit_logs(created_at)')
