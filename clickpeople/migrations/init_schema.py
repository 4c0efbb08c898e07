"""Database schema initialization.

Contains all CREATE TABLE and CREATE INDEX statements for the Click People
approval database: organization directory, providers, the flow configuration
document and the approval ledger.

Called by database.init_db().
"""


def create_schema(conn, cursor):
    """Create all database tables and indexes.

    Args:
        conn: Database connection (the caller commits)
        cursor: Database cursor from get_cursor(conn)
    """
    # ── Organization directory ──
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            is_admin BOOLEAN NOT NULL DEFAULT FALSE,
            hierarchy_level INTEGER NOT NULL DEFAULT 10,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_users_level ON users(hierarchy_level) WHERE is_active')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS areas (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            director_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            c_level_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')

    # ── Providers (subjects of TERMINATION / REMUNERATION requests) ──
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS providers (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            area_id INTEGER REFERENCES areas(id),
            position TEXT,
            salary NUMERIC(15,2),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_providers_area ON providers(area_id)')

    # ── Versioned configuration documents (APPROVAL_FLOWS) ──
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS system_config (
            key TEXT PRIMARY KEY,
            value JSONB NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            updated_by INTEGER REFERENCES users(id),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')

    # ── Approval ledger ──
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_requests (
            id SERIAL PRIMARY KEY,
            request_type TEXT NOT NULL,
            creator_id INTEGER NOT NULL REFERENCES users(id),
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            area_id INTEGER REFERENCES areas(id),
            payload JSONB NOT NULL DEFAULT '{}',
            status TEXT NOT NULL DEFAULT 'PENDING',
            current_step_number INTEGER NOT NULL DEFAULT 1,
            flow_version INTEGER,
            side_effect_status TEXT NOT NULL DEFAULT 'NONE',
            side_effect_error TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            resolved_at TIMESTAMPTZ,
            CONSTRAINT chk_approval_request_type CHECK (
                request_type IN ('RECESS', 'TERMINATION', 'HIRING', 'PURCHASE', 'REMUNERATION')),
            CONSTRAINT chk_approval_status CHECK (
                status IN ('PENDING', 'APPROVED', 'REJECTED')),
            CONSTRAINT chk_approval_side_effect CHECK (
                side_effect_status IN ('NONE', 'DONE', 'FAILED'))
        )
    ''')
    # At most one open request per subject and type
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS uq_approval_requests_open_subject
        ON approval_requests(request_type, entity_type, entity_id)
        WHERE status = 'PENDING'
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_requests_status ON approval_requests(status)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_requests_creator ON approval_requests(creator_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_steps (
            id SERIAL PRIMARY KEY,
            request_id INTEGER NOT NULL REFERENCES approval_requests(id) ON DELETE CASCADE,
            step_number INTEGER NOT NULL,
            stage TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',
            approver_id INTEGER REFERENCES users(id),
            decided_at TIMESTAMPTZ,
            comment TEXT,
            admin_override BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE (request_id, step_number),
            CONSTRAINT chk_approval_step_number CHECK (step_number >= 1),
            CONSTRAINT chk_approval_step_status CHECK (
                status IN ('PENDING', 'APPROVED', 'REJECTED'))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_steps_request ON approval_steps(request_id, step_number)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_audit_log (
            id SERIAL PRIMARY KEY,
            request_id INTEGER REFERENCES approval_requests(id),
            action TEXT NOT NULL,
            actor_id INTEGER REFERENCES users(id),
            actor_type TEXT NOT NULL DEFAULT 'user',
            details JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_audit_request ON approval_audit_log(request_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_audit_timestamp ON approval_audit_log(created_at)')
