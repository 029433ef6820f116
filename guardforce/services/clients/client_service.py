import logging
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload

from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.clients.client import Client
from guardforce.models.clients.client_branch import ClientBranch
from guardforce.models.shared.enums import ClientStatus, BranchStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.clients.client_schema import (
    ClientCreate, ClientUpdate, ClientResponse, BranchData, BranchCreate, BranchUpdate
)
from guardforce.utils.code_generator import generate_sequential_code

logger = logging.getLogger(__name__)

CLIENT_CODE_PREFIX = "CLT-"


class ClientService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # region ========== Helpers ==========

    async def _save(self, commit: bool):
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()

    async def _generate_client_code(self, org_id: str) -> str:
        return await generate_sequential_code(
            self.session, Client.client_code, CLIENT_CODE_PREFIX, 4, Client.org_id == org_id
        )

    async def _generate_branch_code(self, org_id: str, client_code: str) -> str:
        return await generate_sequential_code(
            self.session, ClientBranch.branch_code, f"{client_code}-BR-", 3, ClientBranch.org_id == org_id
        )

    async def _add_branch(self, ctx: AuthContext, client: Client, data: BranchData) -> ClientBranch:
        branch_code = data.branch_code
        if branch_code:
            existing = await self.session.execute(
                select(ClientBranch.id).where(
                    ClientBranch.org_id == ctx.org_id,
                    ClientBranch.branch_code == branch_code
                ).limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                raise ValidationError(f"Branch code '{branch_code}' already exists")
        else:
            branch_code = await self._generate_branch_code(ctx.org_id, client.client_code)

        branch = ClientBranch(
            org_id=ctx.org_id,
            client_id=client.id,
            branch_code=branch_code,
            current_guards=0,
            status=BranchStatus.ACTIVE,
            created_by=ctx.user_id,
            **data.model_dump(exclude={"branch_code"})
        )
        self.session.add(branch)
        return branch

    # endregion

    # region ========== Clients ==========

    async def create_client(self, ctx: AuthContext, data: ClientCreate, commit: bool = True) -> Client:
        try:
            duplicate = await self.session.execute(
                select(Client.id).where(
                    Client.org_id == ctx.org_id,
                    func.lower(Client.client_name) == data.client_name.lower(),
                    Client.is_deleted == False
                ).limit(1)
            )
            if duplicate.scalar_one_or_none() is not None:
                raise ValidationError(f"Client '{data.client_name}' already exists")

            client = Client(
                org_id=ctx.org_id,
                client_code=await self._generate_client_code(ctx.org_id),
                is_active=data.status != ClientStatus.INACTIVE,
                created_by=ctx.user_id,
                **data.model_dump(exclude={"branch_data"})
            )
            self.session.add(client)
            await self.session.flush()

            # First branch is written in the same transaction as the client
            if data.branch_data:
                branch = await self._add_branch(ctx, client, data.branch_data)
                await self.session.flush()
                logger.info(f"Branch {branch.branch_code} created with client {client.client_code}")

            await self._save(commit)
            logger.info(f"Client created: {client.client_code} - {client.client_name} by user {ctx.user_id}")
            return client

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating client: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating client")

    async def update_client(self, ctx: AuthContext, client_id: str, data: ClientUpdate, commit: bool = True) -> Client:
        try:
            client = await self.get_client(ctx, client_id)
            if not client:
                raise NotFoundError("Client not found")

            changes = data.model_dump(exclude_unset=True)
            for field, value in changes.items():
                setattr(client, field, value)
            if "status" in changes:
                client.is_active = client.status != ClientStatus.INACTIVE
            client.updated_by = ctx.user_id
            client.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Client updated: {client.client_code} by user {ctx.user_id}")
            return client

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating client {client_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating client")

    async def delete_client(self, ctx: AuthContext, client_id: str) -> bool:
        try:
            client = await self.get_client(ctx, client_id)
            if not client:
                raise NotFoundError("Client not found")

            staffed = await self.session.scalar(
                select(func.coalesce(func.sum(ClientBranch.current_guards), 0)).where(
                    ClientBranch.client_id == client.id,
                    ClientBranch.is_deleted == False
                )
            )
            if staffed:
                raise InvalidStateError("Cannot delete a client with deployed guards")

            client.is_deleted = True
            client.is_active = False
            client.updated_by = ctx.user_id
            client.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Client deleted: {client.client_code} by user {ctx.user_id}")
            return True

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting client {client_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting client")

    async def get_client(self, ctx: AuthContext, client_id: str, with_branches: bool = False) -> Optional[Client]:
        query = select(Client).where(
            Client.id == client_id,
            Client.org_id == ctx.org_id,
            Client.is_deleted == False
        )
        if with_branches:
            query = query.options(selectinload(Client.branches))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_clients(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 50,
        status: Optional[ClientStatus] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        conditions = [Client.org_id == ctx.org_id, Client.is_deleted == False]
        if status:
            conditions.append(Client.status == status)
        if search:
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Client.client_code.ilike(term),
                Client.client_name.ilike(term),
                Client.contact_person.ilike(term),
                Client.city.ilike(term),
            ))

        total_count = await self.session.scalar(select(func.count(Client.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Client)
            .where(*conditions)
            .order_by(Client.client_name)
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [ClientResponse.model_validate(c) for c in result.scalars().all()],
        }

    async def get_client_stats(self, ctx: AuthContext) -> Dict[str, int]:
        result = await self.session.execute(
            select(Client.status, func.count(Client.id))
            .where(Client.org_id == ctx.org_id, Client.is_deleted == False)
            .group_by(Client.status)
        )
        stats = {s.value: 0 for s in ClientStatus}
        for client_status, count in result.all():
            stats[client_status.value] = count
        stats["total"] = sum(stats.values())

        stats["total_branches"] = await self.session.scalar(
            select(func.count(ClientBranch.id)).where(
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.is_deleted == False
            )
        ) or 0
        return stats

    # endregion

    # region ========== Branches ==========

    async def create_branch(self, ctx: AuthContext, data: BranchCreate, commit: bool = True) -> ClientBranch:
        try:
            client = await self.get_client(ctx, data.client_id)
            if not client:
                raise NotFoundError("Client not found")
            if client.status == ClientStatus.INACTIVE:
                raise InvalidStateError("Cannot add branches to an inactive client")

            branch = await self._add_branch(ctx, client, BranchData(**data.model_dump(exclude={"client_id"})))
            await self._save(commit)

            logger.info(f"Branch created: {branch.branch_code} for client {client.client_code} by user {ctx.user_id}")
            return branch

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating branch: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating branch")

    async def update_branch(self, ctx: AuthContext, branch_id: str, data: BranchUpdate) -> ClientBranch:
        try:
            branch = await self.get_branch(ctx, branch_id)
            if not branch:
                raise NotFoundError("Branch not found")

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(branch, field, value)
            branch.updated_by = ctx.user_id
            branch.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Branch updated: {branch.branch_code} by user {ctx.user_id}")
            return branch

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating branch {branch_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating branch")

    async def get_branch(self, ctx: AuthContext, branch_id: str) -> Optional[ClientBranch]:
        result = await self.session.execute(
            select(ClientBranch).where(
                ClientBranch.id == branch_id,
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_client_branches(self, ctx: AuthContext, client_id: str) -> List[ClientBranch]:
        client = await self.get_client(ctx, client_id)
        if not client:
            raise NotFoundError("Client not found")

        result = await self.session.execute(
            select(ClientBranch)
            .where(
                ClientBranch.client_id == client_id,
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.is_deleted == False
            )
            .order_by(ClientBranch.branch_code)
        )
        return list(result.scalars().all())

    # endregion
