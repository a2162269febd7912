from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import find_user_by_email, get_current_admin, normalize_email
from app.core.permissions import PERMISSION_DEFINITIONS, serialize_permissions
from app.core.security import get_password_hash
from app.database.deps import get_db
from app.models.user import User
from app.routes.auth import build_user_out, is_valid_email
from app.schemas.user import PermissionOptionOut, UserCreate, UserOut, UserPasswordReset

router = APIRouter(prefix='/users', tags=['Users'])
VALID_ROLES = {'admin', 'operador'}


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail='Usuário não encontrado')
    return user


@router.get('/permissions', response_model=list[PermissionOptionOut])
def list_permissions(
    current_user: User = Depends(get_current_admin),
):
    return [PermissionOptionOut(code=item['code'], label=item['label']) for item in PERMISSION_DEFINITIONS]


@router.get('/', response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    rows = db.query(User).order_by(User.name.asc()).all()
    return [build_user_out(row) for row in rows]


@router.post('/', response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    email = normalize_email(payload.email)
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail='Email incorreto')
    if find_user_by_email(db, email):
        raise HTTPException(status_code=409, detail='Email já cadastrado')
    if payload.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail='Perfil inválido')

    user = User(
        name=payload.name.strip(),
        email=email,
        password=get_password_hash(payload.password),
        role=payload.role,
        permissions=serialize_permissions([] if payload.role == 'admin' else payload.permissions),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return build_user_out(user)


@router.put('/{user_id}/password', status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    user_id: int,
    payload: UserPasswordReset,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    user = _get_user_or_404(db, user_id)
    user.password = get_password_hash(payload.password)
    db.commit()
    return None


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    if current_user.id == user_id:
        raise HTTPException(status_code=400, detail='Não é possível excluir o próprio usuário')
    user = _get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()
    return None
